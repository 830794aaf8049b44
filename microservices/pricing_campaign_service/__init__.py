"""
Pricing Campaign Service

Store-wide discount campaign microservice providing:
- Read-only projection of a discount under a minimum markup floor
- Bulk apply with a price snapshot, and exact revert from it
- Single active campaign enforced through a durable compare-and-set record
- Crash recovery of interrupted apply/revert phases

Port: 8252
"""

__version__ = "1.0.0"
__service__ = "pricing_campaign_service"
