"""Table detection and extraction for rendered chat transcripts.

Submodules:
  patterns     -- compiled regex patterns and constant tuples
  classifiers  -- cell, line and title classification helpers
  cleaning     -- cell text normalisation
  dom          -- Node/Document handles over a BeautifulSoup tree, mutation records
  schema       -- TableData and pipeline Pydantic models
  config       -- DetectionConfig / RepairOptions (env + .env overrides)
  parsers      -- markup, markdown, div-grid and free-text parsers
  repair       -- merged cells, header restoration, column normalisation, validation
  scoring      -- confidence scores over structural features
  filtering    -- wrapper detection and duplicate removal
  titles       -- per-platform conversation title extraction
  platforms    -- platform profiles, candidate search, observation roots
  registry     -- BatchRegistry of live detection results
  detection    -- TableDetector passes and the command-line entry point
  scheduler    -- debounced, mutation-triggered rescans
  diagnostics  -- candidate reports, mode comparison, highlighting
  web.app      -- FastAPI debug server
"""
