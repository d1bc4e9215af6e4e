"""
Match lifecycle domain: pure rules with no database access.
Temporal classification, team-name collision detection, reason codes.
"""
