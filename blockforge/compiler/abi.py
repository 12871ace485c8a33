"""Structural checks on compiled interfaces.

Problems are reported, never raised: an odd ABI should not fail a build
the compiler itself accepted.
"""

from __future__ import annotations

from typing import Any

_EVM_ENTRY_TYPES = {"function", "constructor", "event", "error", "fallback", "receive"}
_NAMED_ENTRY_TYPES = {"function", "event", "error"}


def validate_evm_abi(abi: Any) -> list[str]:
  if not isinstance(abi, list):
    return ["ABI must be a list of entries"]

  problems: list[str] = []
  for index, entry in enumerate(abi):
    if not isinstance(entry, dict):
      problems.append(f"entry {index}: not an object")
      continue
    entry_type = entry.get("type", "function")
    if entry_type not in _EVM_ENTRY_TYPES:
      problems.append(f"entry {index}: unknown type {entry_type!r}")
      continue
    if entry_type in _NAMED_ENTRY_TYPES and not entry.get("name"):
      problems.append(f"entry {index}: {entry_type} without a name")
    for param in entry.get("inputs") or []:
      if not isinstance(param, dict) or not param.get("type"):
        problems.append(f"entry {index}: input without a type")
  return problems


def validate_soroban_abi(interface: Any) -> list[str]:
  if not isinstance(interface, dict):
    return ["interface must be an object"]

  functions = interface.get("functions")
  if not isinstance(functions, list):
    return ["interface is missing a functions list"]

  problems: list[str] = []
  for index, function in enumerate(functions):
    if not isinstance(function, dict) or not function.get("name"):
      problems.append(f"function {index}: missing name")
  return problems


def validate_abi(kind: str, abi: Any) -> list[str]:
  if kind == "evm":
    return validate_evm_abi(abi)
  return validate_soroban_abi(abi)
