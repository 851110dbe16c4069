"""Core business logic.

Modules:
- security: password hashing, JWT tokens, role helpers
- auth: signup, signin, session verification
- rate_limit: in-memory fixed-window limiter
- scoring: per-type answer checking and exam stats
- exam_attempts: start, answer, complete and review attempts
- exam_preview: sample papers from exam structures
- profile: the signed-in user's profile and activity
- analytics: admin dashboard metrics
- pdf_extractor: PDF text extraction
- question_extractor: AI question extraction from PDFs
- question_import: spreadsheet/PDF import batches, review and commit
"""
