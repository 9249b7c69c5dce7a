"""
API Module for the Alba conciergerie service.

FastAPI application with routes for:
- AI reply generation, history and feedback
- Inbound guest email webhooks
- Conversation maintenance and notifications

The application is created in api.main.
"""
