#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Scenario:
  handle: str
  expected_screen: str
  expected_challenge: str | None = None
  password: str | None = None


def parse_scenarios(raw: str) -> list[Scenario]:
  """Parse ``handle=screen[:challenge[:password]]`` entries separated by commas."""
  scenarios: list[Scenario] = []
  for chunk in raw.split(","):
    entry = chunk.strip()
    if not entry or "=" not in entry:
      continue
    handle, expectation = entry.split("=", 1)
    parts = expectation.split(":")
    scenarios.append(
      Scenario(
        handle=handle.strip(),
        expected_screen=parts[0].strip(),
        expected_challenge=(parts[1].strip() or None) if len(parts) > 1 else None,
        password=parts[2] if len(parts) > 2 else None,
      )
    )
  return scenarios


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  scenarios = parse_scenarios(os.getenv("SHARE_SMOKE_SCENARIOS", ""))
  if not scenarios:
    print("Set SHARE_SMOKE_SCENARIOS, e.g. 'jane-doe=challenge:otp,larry=challenge:password:secret,olivia=profile'.")
    return 2

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    for scenario in scenarios:
      client.cookies.clear()
      response = client.get(f"/share/{scenario.handle}")
      scenario_result: dict[str, Any] = {
        "handle": scenario.handle,
        "expected_screen": scenario.expected_screen,
        "expected_challenge": scenario.expected_challenge,
        "status_code": response.status_code,
      }
      if response.status_code != 200:
        scenario_result["pass"] = False
        scenario_result["error"] = f"/share/{scenario.handle} returned {response.status_code}"
        results.append(scenario_result)
        continue

      screen = response.json()
      scenario_result["screen"] = screen.get("screen")
      scenario_result["challenge"] = screen.get("challenge")
      scenario_result["body"] = screen

      passed = screen.get("screen") == scenario.expected_screen
      if scenario.expected_challenge is not None:
        passed = passed and screen.get("challenge") == scenario.expected_challenge
      if not passed:
        scenario_result["pass"] = False
        scenario_result["error"] = (
          f"Expected {scenario.expected_screen}/{scenario.expected_challenge}, "
          f"got {screen.get('screen')}/{screen.get('challenge')}"
        )
        results.append(scenario_result)
        continue

      if scenario.password is not None:
        unlocked = client.post(f"/share/{scenario.handle}/password", json={"password": scenario.password})
        unlocked_body = unlocked.json() if unlocked.status_code == 200 else {"detail": unlocked.text[:500]}
        scenario_result["unlocked_screen"] = unlocked_body.get("screen")
        scenario_result["body"] = unlocked_body
        passed = unlocked.status_code == 200 and unlocked_body.get("screen") == "profile"
        if not passed:
          scenario_result["error"] = "Password did not unlock the profile."

      client.delete(f"/share/{scenario.handle}")
      scenario_result["pass"] = passed
      results.append(scenario_result)

  passed_count = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed_count
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Share Flow Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- HEALTHSHARE_API_BASE_URL: `{os.getenv('HEALTHSHARE_API_BASE_URL')}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed_count}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['handle']}")
    report_lines.append(f"- Expected screen: `{item.get('expected_screen')}`")
    report_lines.append(f"- Actual screen: `{item.get('screen')}`")
    report_lines.append(f"- Challenge: `{item.get('challenge')}`")
    report_lines.append(f"- Status code: `{item.get('status_code')}`")
    if item.get("unlocked_screen"):
      report_lines.append(f"- Screen after password: `{item['unlocked_screen']}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    report_lines.append("- Response payload:")
    report_lines.append("```json")
    report_lines.append(json.dumps(item.get("body"), indent=2, ensure_ascii=True))
    report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "SHARE_FLOW_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed_count}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
