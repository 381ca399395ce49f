"""Per-video workspace layout on disk.

WHY: Every stage of the video pipeline reads and writes files inside one
directory per video. Deriving the paths in one place keeps the captioned
output path deterministic, which is what makes the idempotency check work
across reruns.

RULES:
- Directory: <input_root>/<video_id>/
- Rendered input: rendered_<LANGUAGE>.mp4
- Captioned output: captioned_<LANGUAGE>.mp4
- Reference texts: generatedTexts.json, a {LANGUAGE: text} object
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict


class VideoWorkspace:
    """File paths for one video's working directory."""

    def __init__(self, input_root: Path, video_id: str) -> None:
        self.video_id = video_id
        self.directory = (Path(input_root) / video_id).resolve()

    def file_path(self, file_name: str) -> Path:
        return self.directory / file_name

    @property
    def generated_texts_path(self) -> Path:
        return self.file_path("generatedTexts.json")

    def rendered_video_path(self, language: str) -> Path:
        return self.file_path("rendered_{}.mp4".format(language))

    def captioned_video_path(self, language: str) -> Path:
        return self.file_path("captioned_{}.mp4".format(language))

    def load_generated_texts(self) -> Dict[str, str]:
        """Read generatedTexts.json, returning {} if it does not exist.

        Raises:
            ValueError: the file is not a JSON object.
        """
        path = self.generated_texts_path
        if not path.is_file():
            return {}
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("{} must contain a JSON object".format(path))
        return {str(k): v for k, v in data.items() if isinstance(v, str)}
