"""Authentication and authorization.

Users register with email/password, confirm the activation link, and
log in for a signed bearer token. Every protected request passes the
access decision point in dependencies.py: signature/expiry check,
revocation lookup, then the route's role requirement.
"""
