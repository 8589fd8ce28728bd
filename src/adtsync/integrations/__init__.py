"""
adtsync.integrations - Integration Layer
=========================================

Adapters for the external systems adtsync talks to:

    - adt: SAP NetWeaver ABAP Development Tools (ADT) REST API
"""
