"""
StepGuard -- assertion-integrity and step-quality verification engine.

Subsystems:
  integrity   -- canonical corpus extraction, digest storage, git anchors
  frameworks  -- BDD framework profiles and dry-run output grammars
  coverage    -- undefined/pending step detection via framework dry runs
  quality     -- static classification of step-binding bodies
  verdict     -- tamper-evidence decision table and gate layering
  execution   -- reconciliation of test-run output with declared scenarios
"""

__version__ = "0.4.0"
