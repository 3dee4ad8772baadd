"""
auth — authenticated principal for protected routes.

Provides:
  • signed bearer token verification (``auth.jwt``)
  • ``get_current_user_id`` / ``db_session`` FastAPI dependencies
"""
