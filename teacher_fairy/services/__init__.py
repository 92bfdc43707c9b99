"""
Teacher Fairy Services
======================

Business logic services for the Teacher Fairy application.

Services:
- standards_catalog: Standards pools, suggestion, selection, import/export
- plan_renderer: Local HTML rendering of daily / weekly / unit plans
- plan_generator: Remote generation with local fallback
- openai_plan_service: OpenAI prompt and call behind /api/plan
- document_export: .doc / .docx export and clipboard payloads
- file_text: Text extraction from attached files
- state_store: Local persistence of the whole application state
- backup_service / google_drive: Drive backup and restore
"""

# Services are imported directly when needed to avoid circular imports
# Example: from teacher_fairy.services.plan_renderer import render

__all__ = [
    'standards_catalog',
    'plan_renderer',
    'plan_generator',
    'openai_plan_service',
    'document_export',
    'file_text',
    'state_store',
    'backup_service',
    'google_drive',
]
