"""
Backend package for the crop-yield prediction app.

This package provides a FastAPI application that keeps user accounts in
sync with Clerk (via signed webhooks) and stores yield predictions and the
feedback users leave on them.
"""
