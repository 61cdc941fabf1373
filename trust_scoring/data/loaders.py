# ------------------------------------------------------------------------------------------------
# License
# ------------------------------------------------------------------------------------------------

# Copyright (c) 2025 LSeu-Open
#
# This code is licensed under the MIT License.
# See LICENSE file in the root directory

# ------------------------------------------------------------------------------------------------
# Description
# ------------------------------------------------------------------------------------------------

"""
Data loading utilities for submission files.

A submission file holds either a full envelope (``cid``, ``uploaderId``,
``payload``...) or a bare payload. The ``.cid`` and ``.signature`` side files
next to it take precedence over the envelope's own fields.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ..core.constants import PAYLOAD_PROMPTS, PAYLOAD_RESPONSES
from ..core.types import Prompt, PromptResponse, Submission
from ..integrity.content_id import compute_cid
from ..integrity.signing import read_side_files, write_side_files
from .validators import payload_entries

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_json_file(file_path: PathLike) -> Optional[Any]:
    """Load and parse a JSON file.

    Args:
        file_path (PathLike): Path to the JSON file to load

    Returns:
        Optional[Any]: Parsed JSON data if successful, None otherwise
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error(f"File '{file_path}' not found")
        return None
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON format in '{file_path}': {str(e)}")
        return None
    except OSError as e:
        logger.error(f"Error loading JSON file '{file_path}': {str(e)}")
        return None


def load_submission(file_path: PathLike, uploader_id: Optional[str] = None) -> Optional[Submission]:
    """Load a submission file together with its side files.

    Args:
        file_path (PathLike): Envelope or bare payload JSON file
        uploader_id (Optional[str]): Overrides the envelope's ``uploaderId``

    Returns:
        Optional[Submission]: The submission, or None if the file cannot be read

    Notes:
        - Without a ``.cid`` side file or envelope CID, the CID is computed from the payload
        - The file name stem is the uploader id of last resort
    """
    data = load_json_file(file_path)
    if not isinstance(data, dict):
        if data is not None:
            logger.error(f"Submission file '{file_path}' must contain a JSON object")
        return None

    envelope: Dict[str, Any] = dict(data) if "payload" in data else {"payload": data}
    side_cid, side_signature = read_side_files(file_path)
    if side_cid:
        if envelope.get("cid") and envelope["cid"] != side_cid:
            logger.warning(f"[-] '{file_path}': envelope CID differs from side file, using side file")
        envelope["cid"] = side_cid
    if side_signature:
        envelope["signature"] = side_signature
    if uploader_id:
        envelope["uploaderId"] = uploader_id
    envelope.setdefault("uploaderId", Path(file_path).stem)

    try:
        if not envelope.get("cid"):
            envelope["cid"] = compute_cid(envelope["payload"])
        return Submission.from_dict(envelope)
    except (TypeError, ValueError) as e:
        logger.error(f"Malformed submission in '{file_path}': {str(e)}")
        return None


def save_submission(file_path: PathLike, submission: Submission) -> Path:
    """Write a submission envelope and its side files.

    Returns:
        Path: The envelope path
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(submission.to_dict(), f, indent=4, ensure_ascii=False)
    write_side_files(path, submission.cid, submission.signature)
    logger.info(f"[+] Submission '{submission.cid}' written to {path}")
    return path


def _payload_of(data: Any) -> Mapping[str, Any]:
    if isinstance(data, dict) and "payload" in data:
        return data["payload"]
    if isinstance(data, list):
        return {"data": data}
    return data if isinstance(data, dict) else {}


def load_prompts(file_path: PathLike) -> Dict[str, Prompt]:
    """Load prompts from a prompts payload, envelope or plain list, keyed by id."""
    payload = _payload_of(load_json_file(file_path))
    if payload.get("type", PAYLOAD_PROMPTS) != PAYLOAD_PROMPTS:
        logger.error(f"'{file_path}' holds a '{payload.get('type')}' payload, not prompts")
        return {}
    prompts: Dict[str, Prompt] = {}
    for entry in payload_entries(payload):
        try:
            prompt = Prompt.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed prompt in '{file_path}': {str(e)}")
            continue
        prompts.setdefault(prompt.id, prompt)
    return prompts


def load_responses(file_path: PathLike, prompts: Mapping[str, Prompt]) -> List[PromptResponse]:
    """Load responses and attach their prompts; responses to unknown prompts keep ``prompt=None``."""
    payload = _payload_of(load_json_file(file_path))
    if payload.get("type", PAYLOAD_RESPONSES) != PAYLOAD_RESPONSES:
        logger.error(f"'{file_path}' holds a '{payload.get('type')}' payload, not responses")
        return []
    responses: List[PromptResponse] = []
    for entry in payload_entries(payload):
        try:
            response = PromptResponse.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed response in '{file_path}': {str(e)}")
            continue
        prompt = prompts.get(response.prompt_id)
        if prompt is None:
            logger.warning(f"Response '{response.id}' refers to unknown prompt '{response.prompt_id}'")
        responses.append(PromptResponse.from_dict(entry, prompt=prompt))
    return responses


__all__ = ["load_json_file", "load_prompts", "load_responses", "load_submission", "save_submission"]
