"""Authentication collaborator.

Learn: Login itself (LINE OAuth → our JWT) lives elsewhere. This package
only verifies the JWT on incoming requests and turns it into a
"current identity" whose user_id the rest of the app trusts as given.
"""
