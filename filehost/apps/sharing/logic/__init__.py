"""Business logic for sharing app.

- Permission resolution over direct and inherited folder shares
- Share creation, listing and revocation
"""
