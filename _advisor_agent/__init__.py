# PM Advisor - Review Agent Package
#
# This package contains the staged review pipeline that critiques a
# previously generated project artifact (meeting analysis, product docs,
# release notes, prioritization). Each stage is in its own file following
# the one-function-per-file architecture pattern.
#
# The pipeline is orchestrated by review_pipeline_main.py. It reads the
# project's other artifacts from the artifact store, calls Gemini once
# (plus one optional format-repair call), and writes the review back to
# the store as a new pm_advisor_feedback artifact.
#
# Stage flow:
#   1. Validate Request -> 2. Select Context -> 3. Compress Text
#   -> 4. Build Context Index -> 5. Build Review Prompt
#   -> 6. Gemini Advisor Review -> 7. Persist Review & Backlink

PIPELINE_VERSION = "pm-advisor@2026-10-19.1"
