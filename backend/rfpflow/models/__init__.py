from rfpflow.models.rfp import RFP, RFPLineItem, RFPInvitation, InvitationStatus
from rfpflow.models.vendor import Vendor
from rfpflow.models.proposal import Proposal

__all__ = ["RFP", "RFPLineItem", "RFPInvitation", "InvitationStatus", "Vendor", "Proposal"]
