"""
Backend package for the portfolio site.

This package provides a FastAPI application over the site content
(projects, case studies, carousel, skills, testimonials, timeline and
single-page documents) with record-store, image-hosting, cache and mail
abstractions so the same code runs against Firebase/Cloudinary in
production and in-memory doubles in tests.
"""
