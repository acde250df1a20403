"""
Prompt Formatter - Chat formatting for local instruction models

Responsibilities:
- Detect model family from model name
- Render (system, user) prompts with the tokenizer chat template
- Fall back to manual instruction tags for known families

Design principles:
- Tokenizer template first, manual tags second, passthrough last
- Families without a system role get the system prompt folded into the
  user turn
- Stateless formatting
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def _inline_system(prompt: str, system_prompt: Optional[str]) -> str:
    return f"{system_prompt}\n\n{prompt}" if system_prompt else prompt


class PromptFormatter:
    """Format (system, user) prompts for a model family"""

    MANUAL_FORMATS = {
        "mistral": lambda prompt, system: f"[INST] {_inline_system(prompt, system)} [/INST]",
        "mixtral": lambda prompt, system: f"[INST] {_inline_system(prompt, system)} [/INST]",
        "llama-2": lambda prompt, system: (
            f"[INST] <<SYS>>\n{system}\n<</SYS>>\n\n{prompt} [/INST]" if system
            else f"[INST] {prompt} [/INST]"
        ),
        "llama-3": lambda prompt, system: (
            "<|begin_of_text|>"
            + (f"<|start_header_id|>system<|end_header_id|>\n\n{system}<|eot_id|>" if system else "")
            + f"<|start_header_id|>user<|end_header_id|>\n\n{prompt}<|eot_id|>"
            + "<|start_header_id|>assistant<|end_header_id|>\n\n"
        ),
        "zephyr": lambda prompt, system: (
            (f"<|system|>\n{system}\n" if system else "") + f"<|user|>\n{prompt}\n<|assistant|>\n"
        ),
    }

    # Chat templates of these families reject a "system" role
    NO_SYSTEM_ROLE = {"mistral", "mixtral"}

    def __init__(self, model_name: str, tokenizer=None):
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.model_family = self._detect_model_family(model_name)

        self.has_chat_template = getattr(tokenizer, 'chat_template', None) is not None

        if self.has_chat_template:
            logger.info(f"Using tokenizer chat template for {model_name}")
        elif self.model_family in self.MANUAL_FORMATS:
            logger.info(f"Using manual formatting for {self.model_family} family")
        else:
            logger.warning(f"No chat template or known format for {model_name}; prompts passed through")

    def _detect_model_family(self, model_name: str) -> str:
        name_lower = model_name.lower()

        # Most specific first
        if "llama-3" in name_lower or "llama3" in name_lower:
            return "llama-3"
        if "llama" in name_lower:
            return "llama-2"
        if "mixtral" in name_lower:
            return "mixtral"
        if "mistral" in name_lower:
            return "mistral"
        if "zephyr" in name_lower:
            return "zephyr"
        return "generic"

    def build_messages(self, prompt: str, system_prompt: Optional[str] = None) -> list:
        """Chat messages for the tokenizer template"""
        if not system_prompt:
            return [{"role": "user", "content": prompt}]
        if self.model_family in self.NO_SYSTEM_ROLE:
            return [{"role": "user", "content": _inline_system(prompt, system_prompt)}]
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]

    def format_instruction(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Format prompt for the model

        Examples:
            >>> formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2")
            >>> formatter.format_instruction("Say hi", system_prompt="Be brief.")
            '[INST] Be brief.\\n\\nSay hi [/INST]'
        """
        if self.has_chat_template:
            try:
                return self.tokenizer.apply_chat_template(
                    self.build_messages(prompt, system_prompt),
                    tokenize=False,
                    add_generation_prompt=True
                )
            except Exception as e:
                logger.warning(f"Tokenizer chat template failed: {e}. Falling back to manual formatting")

        if self.model_family in self.MANUAL_FORMATS:
            return self.MANUAL_FORMATS[self.model_family](prompt, system_prompt)

        return _inline_system(prompt, system_prompt)

    def get_info(self) -> dict:
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
        }
