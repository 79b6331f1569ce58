"""
StudyShare Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:       /api/auth/register, /login, /forgot-password, /reset-password
    - users.py:      GET/PATCH /api/users/me
    - resources.py:  /api/resources (upload, list, search, detail, edit,
                     delete, upvote, comment)
    - files.py:      GET /api/files/{path}   (locally stored documents)
    - health.py:     GET /, GET /health

Routes stay thin: read the request, call a service, shape the response.
Business rules live in services/.
"""
