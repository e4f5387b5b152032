"""
Procurement engines: pure calculation, zero I/O.

    reconciliation  -- totals, receiving limits, receipt progress, acceptance
    matching        -- three-way match variances and verdict
    payments        -- payment status and payment guards
    routing         -- approver and workflow selection
"""
