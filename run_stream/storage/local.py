"""
Local filesystem storage backend.

Implements RunStorage over a directory tree:

    <runs_dir>/<run_id>.json             run metadata (RunInfo)
    <runs_dir>/<run_id>.jsonl            raw output, one JSON line per event
    <projects_dir>/<project>/<session_id>.jsonl   durable session transcripts
"""

from __future__ import annotations

import json
import pathlib
from typing import Any

from run_stream.exceptions import RunNotFoundError
from run_stream.schemas.runs import RunInfo


class LocalRunStorage:
    """Local filesystem run storage."""

    def __init__(self, runs_dir: pathlib.Path, projects_dir: pathlib.Path) -> None:
        """
        Initialize local run storage.

        Args:
            runs_dir: Directory holding run metadata and raw output
            projects_dir: Directory holding per-project session transcripts

        Raises:
            ValueError: If runs_dir doesn't exist or isn't a directory (fail-fast)
        """
        if not runs_dir.exists():
            raise ValueError(f'Runs directory does not exist: {runs_dir}. Please create it first.')

        if not runs_dir.is_dir():
            raise ValueError(f'Runs path is not a directory: {runs_dir}')

        self.runs_dir = runs_dir
        self.projects_dir = projects_dir

    async def get_run(self, run_id: int) -> RunInfo:
        metadata_file = self.runs_dir / f'{run_id}.json'
        if not metadata_file.exists():
            raise RunNotFoundError(run_id)
        return RunInfo.model_validate_json(metadata_file.read_text(encoding='utf-8'))

    async def list_running_runs(self) -> list[RunInfo]:
        runs = []
        for metadata_file in sorted(self.runs_dir.glob('*.json')):
            run = RunInfo.model_validate_json(metadata_file.read_text(encoding='utf-8'))
            if run.status == 'running':
                runs.append(run)
        return runs

    async def load_durable_transcript(self, session_id: str) -> list[dict[str, Any]]:
        transcript_file = self.find_transcript(session_id)
        if transcript_file is None:
            raise FileNotFoundError(f'No transcript for session {session_id} under {self.projects_dir}')

        entries = []
        with open(transcript_file, encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue  # Partially written trailing line
                if isinstance(entry, dict):
                    entries.append(entry)
        return entries

    async def load_raw_output(self, run_id: int) -> str:
        output_file = self.runs_dir / f'{run_id}.jsonl'
        if not output_file.exists():
            raise FileNotFoundError(f'No output captured for run {run_id}: {output_file}')
        return output_file.read_text(encoding='utf-8')

    async def request_live_handoff(self, run_id: int) -> None:
        raise NotImplementedError('Local run storage cannot stream live output')

    def find_transcript(self, session_id: str) -> pathlib.Path | None:
        """
        Find a session transcript across all project directories.

        Returns:
            Path to <project>/<session_id>.jsonl, None if not found
        """
        if not self.projects_dir.is_dir():
            return None
        for candidate in sorted(self.projects_dir.glob(f'*/{session_id}.jsonl')):
            return candidate
        return None

    def save_run(self, run: RunInfo) -> pathlib.Path:
        """Write run metadata, replacing any previous version."""
        metadata_file = self.runs_dir / f'{run.run_id}.json'
        metadata_file.write_text(run.model_dump_json(indent=2), encoding='utf-8')
        return metadata_file

    def append_output(self, run_id: int, line: str) -> None:
        """Append one raw output line to a run's output file."""
        with open(self.runs_dir / f'{run_id}.jsonl', 'a', encoding='utf-8') as f:
            f.write(line.rstrip('\n') + '\n')
