"""Response parsing for analysis service output."""
from __future__ import annotations

import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class AnalysisResponseError(ValueError):
    """Model output could not be validated against the expected shape."""


class ResponseParser:
    """Parses raw model output into validated response models.

    Handles JSON extraction from fenced or chatty output before giving up.
    """

    def parse(self, raw: str, model: Type[ModelT], *, label: str = "Response") -> ModelT:
        """Parse raw text into ``model``.

        Raises:
            AnalysisResponseError: if no valid JSON object of the expected
                shape can be found
        """
        text = (raw or "").strip()
        try:
            logger.debug("Model output received", extra={"label": label, "output": text})
            return model.model_validate_json(text)
        except ValidationError:
            logger.warning(
                "Model output failed schema validation; attempting extraction",
                extra={"label": label},
            )

        parsed = self._extract(text, model)
        if parsed is None:
            raise AnalysisResponseError(f"{label}: model output did not match {model.__name__}")
        return parsed

    def _extract(self, text: str, model: Type[ModelT]) -> Optional[ModelT]:
        """Find the first JSON object in ``text`` that validates as ``model``.

        Code fences are tried first, then balanced ``{...}`` blocks.
        """
        if not text:
            return None

        if "```" in text:
            parts = text.split("```")
            for block in parts[1::2]:
                if "\n" in block:
                    first_line, rest = block.split("\n", 1)
                    if "{" not in first_line:
                        block = rest
                try:
                    return model.model_validate_json(block.strip())
                except ValidationError:
                    continue

        n = len(text)
        i = 0
        while i < n:
            if text[i] != "{":
                i += 1
                continue
            depth = 0
            in_str = False
            esc = False
            j = i
            while j < n:
                ch = text[j]
                if in_str:
                    if esc:
                        esc = False
                    elif ch == "\\":
                        esc = True
                    elif ch == '"':
                        in_str = False
                elif ch == '"':
                    in_str = True
                elif ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                    if depth == 0:
                        try:
                            return model.model_validate_json(text[i : j + 1])
                        except ValidationError:
                            break
                j += 1
            i += 1

        return None
