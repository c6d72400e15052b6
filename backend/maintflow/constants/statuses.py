from __future__ import annotations
from enum import Enum


class TicketStatus(str, Enum):
    DRAFT = 'DRAFT'
    SUBMITTED = 'SUBMITTED'
    AWAITING_CREATOR_RESPONSE = 'AWAITING_CREATOR_RESPONSE'
    UPDATED_SUBMITTED = 'UPDATED_SUBMITTED'
    COST_ESTIMATION_NEEDED = 'COST_ESTIMATION_NEEDED'
    COST_ESTIMATION_APPROVAL_NEEDED = 'COST_ESTIMATION_APPROVAL_NEEDED'
    COST_ESTIMATION_APPROVED = 'COST_ESTIMATION_APPROVED'
    WORK_ORDER_IN_PROGRESS = 'WORK_ORDER_IN_PROGRESS'
    REJECTED = 'REJECTED'
    WITHDRAWN = 'WITHDRAWN'
    ARCHIVED = 'ARCHIVED'

    @property
    def label(self) -> str:
        return TICKET_STATUS_LABELS[self]


class WorkOrderStatus(str, Enum):
    CREATED = 'CREATED'
    ACCEPTED_TECHNICIAN_ASSIGNED = 'ACCEPTED_TECHNICIAN_ASSIGNED'
    SERVICE_IN_PROGRESS = 'SERVICE_IN_PROGRESS'
    SERVICE_COMPLETED = 'SERVICE_COMPLETED'
    FOLLOW_UP_REQUESTED = 'FOLLOW_UP_REQUESTED'
    NEW_WO_NEEDED = 'NEW_WO_NEEDED'
    REPAIR_UNSUCCESSFUL = 'REPAIR_UNSUCCESSFUL'
    COST_PROPOSAL_PREPARED = 'COST_PROPOSAL_PREPARED'
    COST_REVISION_REQUESTED = 'COST_REVISION_REQUESTED'
    COST_PROPOSAL_APPROVED = 'COST_PROPOSAL_APPROVED'
    CLOSED_WITHOUT_COST = 'CLOSED_WITHOUT_COST'
    REJECTED = 'REJECTED'

    @property
    def label(self) -> str:
        return WORK_ORDER_STATUS_LABELS[self]


TICKET_STATUS_LABELS = {
    TicketStatus.DRAFT: 'Draft',
    TicketStatus.SUBMITTED: 'Ticket Submitted',
    TicketStatus.AWAITING_CREATOR_RESPONSE: 'Awaiting Creator Response',
    TicketStatus.UPDATED_SUBMITTED: 'Updated Ticket Submitted',
    TicketStatus.COST_ESTIMATION_NEEDED: 'Cost Estimation Needed',
    TicketStatus.COST_ESTIMATION_APPROVAL_NEEDED: 'Cost Estimation Approval Needed',
    TicketStatus.COST_ESTIMATION_APPROVED: 'Cost Estimation Approved',
    TicketStatus.WORK_ORDER_IN_PROGRESS: 'Work Order In Progress',
    TicketStatus.REJECTED: 'Rejected',
    TicketStatus.WITHDRAWN: 'Withdrawn',
    TicketStatus.ARCHIVED: 'Archived',
}

WORK_ORDER_STATUS_LABELS = {
    WorkOrderStatus.CREATED: 'Awaiting Service Provider',
    WorkOrderStatus.ACCEPTED_TECHNICIAN_ASSIGNED: 'Technician Assigned',
    WorkOrderStatus.SERVICE_IN_PROGRESS: 'Service In Progress',
    WorkOrderStatus.SERVICE_COMPLETED: 'Service Completed',
    WorkOrderStatus.FOLLOW_UP_REQUESTED: 'Follow-up Requested',
    WorkOrderStatus.NEW_WO_NEEDED: 'New Work Order Needed',
    WorkOrderStatus.REPAIR_UNSUCCESSFUL: 'Repair Unsuccessful',
    WorkOrderStatus.COST_PROPOSAL_PREPARED: 'Cost Proposal Prepared',
    WorkOrderStatus.COST_REVISION_REQUESTED: 'Cost Revision Requested',
    WorkOrderStatus.COST_PROPOSAL_APPROVED: 'Cost Proposal Approved',
    WorkOrderStatus.CLOSED_WITHOUT_COST: 'Closed Without Cost',
    WorkOrderStatus.REJECTED: 'Rejected',
}

TERMINAL_TICKET_STATUSES = frozenset({
    TicketStatus.REJECTED,
    TicketStatus.WITHDRAWN,
    TicketStatus.ARCHIVED,
})

TERMINAL_WORK_ORDER_STATUSES = frozenset({
    WorkOrderStatus.COST_PROPOSAL_APPROVED,
    WorkOrderStatus.CLOSED_WITHOUT_COST,
    WorkOrderStatus.REJECTED,
})

# Statuses in which the store can print a check-in / check-out QR
QR_ELIGIBLE_STATUSES = frozenset({
    WorkOrderStatus.ACCEPTED_TECHNICIAN_ASSIGNED,
    WorkOrderStatus.SERVICE_IN_PROGRESS,
    WorkOrderStatus.FOLLOW_UP_REQUESTED,
})


def is_terminal_ticket_status(value) -> bool:
    return str(getattr(value, 'value', value)) in {s.value for s in TERMINAL_TICKET_STATUSES}


def is_terminal_work_order_status(value) -> bool:
    return str(getattr(value, 'value', value)) in {s.value for s in TERMINAL_WORK_ORDER_STATUSES}


__all__ = [
    'TicketStatus', 'WorkOrderStatus', 'TICKET_STATUS_LABELS', 'WORK_ORDER_STATUS_LABELS',
    'TERMINAL_TICKET_STATUSES', 'TERMINAL_WORK_ORDER_STATUSES', 'QR_ELIGIBLE_STATUSES',
    'is_terminal_ticket_status', 'is_terminal_work_order_status',
]
