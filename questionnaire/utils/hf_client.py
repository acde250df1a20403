"""
HuggingFace Client - Local Language Generation Service

Responsibilities:
- Load an instruction model, optionally with 4-bit quantization
- Format (system, user) prompts for the model family
- Generate text completions
- Report GPU memory and model metadata

Design principles:
- Dependency injection (no singleton)
- Fail fast on critical errors (CUDA OOM, missing CUDA)
- Output is returned raw; decoding belongs to the Response Extractor
"""

import logging
import time
from typing import Optional

import torch
from transformers import (
    AutoModelForCausalLM,
    AutoTokenizer,
    BitsAndBytesConfig
)

from questionnaire.utils.prompt_formatter import PromptFormatter

logger = logging.getLogger(__name__)

DEVICE_CUDA = "cuda"
DEVICE_CPU = "cpu"


class HuggingFaceClient:
    """Local model implementing generate(prompt, system_prompt=None) -> str"""

    def __init__(self, model_name: str, load_in_4bit: bool = True, device: str = DEVICE_CUDA,
                 max_tokens: int = 256, temperature: float = 0.0) -> None:
        """
        Initialize model and tokenizer

        Args:
            model_name: HuggingFace model identifier
            load_in_4bit: Use NF4 quantization (CUDA only)
            device: "cuda" or "cpu"
            max_tokens: Default completion budget
            temperature: Default sampling temperature (0.0 = greedy)

        Raises:
            RuntimeError: If CUDA requested but not available
        """
        self.model_name = model_name
        self.device = device
        self.max_tokens = max_tokens
        self.temperature = temperature

        if device == DEVICE_CUDA and not torch.cuda.is_available():
            raise RuntimeError("CUDA requested but not available. Check nvidia-smi.")

        logger.info(f"Loading model: {model_name} (4-bit={load_in_4bit}, device={device})")

        quantization_config = None
        if load_in_4bit and device == DEVICE_CUDA:
            quantization_config = BitsAndBytesConfig(
                load_in_4bit=True,
                bnb_4bit_quant_type="nf4",
                bnb_4bit_compute_dtype=torch.bfloat16,
                bnb_4bit_use_double_quant=True
            )

        try:
            self.tokenizer = AutoTokenizer.from_pretrained(model_name)
        except Exception as e:
            logger.error(f"Failed to load tokenizer: {e}")
            raise

        try:
            self.model = AutoModelForCausalLM.from_pretrained(
                model_name,
                quantization_config=quantization_config,
                device_map="auto" if device == DEVICE_CUDA else None,
                torch_dtype=torch.bfloat16 if device == DEVICE_CUDA else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error("CUDA Out of Memory during model loading")
            raise
        except Exception as e:
            logger.error(f"Failed to load model: {e}")
            raise

        self.model.eval()
        self.formatter = PromptFormatter(model_name, self.tokenizer)

        if device == DEVICE_CUDA:
            allocated = torch.cuda.memory_allocated() / 1e9
            logger.info(f"GPU memory after load: {allocated:.2f}GB allocated")

        logger.info("HuggingFace client initialized successfully")

    def is_loaded(self) -> bool:
        return self.model is not None and self.tokenizer is not None

    def generate(self, prompt: str, system_prompt: Optional[str] = None,
                 max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> str:
        """
        Generate a completion

        Raises:
            RuntimeError: If model is not loaded
            torch.cuda.OutOfMemoryError: If GPU runs out of memory
        """
        if not self.is_loaded():
            raise RuntimeError("Model not loaded")

        max_tokens = self.max_tokens if max_tokens is None else max_tokens
        temperature = self.temperature if temperature is None else temperature

        start_time = time.time()
        formatted = self.formatter.format_instruction(prompt, system_prompt)

        inputs = self.tokenizer(formatted, return_tensors="pt")
        if self.device == DEVICE_CUDA:
            inputs = inputs.to(DEVICE_CUDA)
        prompt_tokens = inputs.input_ids.shape[1]

        generation_kwargs = {
            "max_new_tokens": max_tokens,
            "do_sample": temperature > 0,
            "pad_token_id": self.tokenizer.eos_token_id,
        }
        if temperature > 0:
            generation_kwargs["temperature"] = temperature

        try:
            with torch.no_grad():
                outputs = self.model.generate(
                    inputs.input_ids,
                    attention_mask=inputs.attention_mask,
                    **generation_kwargs
                )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA OOM during generation (prompt tokens: {prompt_tokens})")
            raise

        generated_ids = outputs[0][prompt_tokens:]
        text = self.tokenizer.decode(generated_ids, skip_special_tokens=True)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(f"Generated {len(generated_ids)} tokens in {elapsed_ms:.0f}ms")
        return text

    def get_model_info(self) -> dict:
        info = {
            "model_name": self.model_name,
            "device": self.device,
            "is_loaded": self.is_loaded(),
            "formatter": self.formatter.get_info(),
        }
        if self.device == DEVICE_CUDA and torch.cuda.is_available():
            info["gpu_memory_allocated_gb"] = torch.cuda.memory_allocated() / 1e9
            info["gpu_memory_reserved_gb"] = torch.cuda.memory_reserved() / 1e9
        return info
