"""
Slack export connector.

Copies a standard Slack export archive and fills in the private channels it
leaves out, using the Web API conversations endpoints.
"""
