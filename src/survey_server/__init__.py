"""survey_server — FastAPI REST API for the survey SDK.

Exposes the administrator lifecycle (save, publish, unpublish, response
views, question inbox) and the public respondent endpoints (survey by
slug, response autosave, per-field questions) as a stateless HTTP API.
"""
