"""Caption Orchestrator: remote captioning workflow for rendered short videos.

WHY: A rendered video needs burned-in captions whose words match the
voiceover script exactly. A third-party provider does the transcription and
rendering; this package drives it, corrects its transcript against the
script, and normalizes the returned file.

HOW: Three layers: clients (api/: provider, correction model), workflow
primitives (core/: polling, transcript merge, download, media), and the
orchestrator (core/orchestrator.py) that sequences them with retries.

RULES:
- One captioned file per (video, language); its path is the idempotency key
- Any failure restarts the whole remote sequence; nothing is resumed
"""

__version__ = "0.1.0"
