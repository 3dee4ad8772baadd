"""
connectors — workspace provider integrations.

Provides a generic connector framework that handles:
  • OAuth2 auth-URL generation and code → token exchange
  • Per-user token storage & auto-refresh
  • Fernet encryption of tokens at rest
  • The messaging capability (list channels, send message)

Each provider (Slack, Google, …) is a subclass of BaseConnector.
"""
