# Services package init
"""
StudyShare Backend — Services Layer
=====================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
How:   Stateless service singletons; routes pass in the request's AsyncSession
       and the authenticated user.

Service Inventory:
    - AuthService: registration, login, JWTs, password reset codes
    - UserService: the signed-in user's profile
    - ResourceService: upload, edit, delete, upvote toggle, comments
    - SearchService: filtered, sorted, paginated resource search
    - StorageService: upload validation; local (aiofiles) or S3 (boto3) backends
    - EmailService: SMTP delivery of reset codes
"""
