"""Server-rendered login surface and catalog table.

Kept deliberately plain: HTML forms, redirects and one table. Auth reuses the
``auth_token`` session cookie issued by the JSON login endpoint.
"""
