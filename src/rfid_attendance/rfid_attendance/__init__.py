"""RFID attendance tracker.

Feature modules (scans, students, attendance, notifications) each follow the
same layering: model, repository protocol, table-backed repository, service,
and a thin Flask controller.
"""
