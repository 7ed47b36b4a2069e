"""Ministry System package.

Cross-tenant ministry aggregation and live synchronization, organized by
feature modules (tenants, directory, corrections, aggregation, sync) with a
thin Flask controller layer over the service layer.
"""
