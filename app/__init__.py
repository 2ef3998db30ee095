"""
Recruitment Platform API
Job postings, applications, interviews and dashboards on MongoDB.

Architecture:
- MongoDB: every entity (users, jobs, applications, interviews)
- Status lifecycle: timeline on every application status change,
  interview status cascades to the application
- DeepSeek AI: optional resume parser only (never scores candidates)
"""

__version__ = "1.0.0"
