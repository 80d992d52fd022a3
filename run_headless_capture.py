"""Run the viewer offscreen for a few frames and capture everything it prints.

The actual run happens in a child Python process so OS-level stdout/stderr
(for example messages emitted by Qt's C++ layer) end up in the capture files
instead of leaking to the console.

Usage:
  python run_headless_capture.py [--frames N] [extra morphfield.main arguments]

Outputs:
  - run_output.txt : combined stdout+stderr from the child run
  - run_exception.txt : the same output, written only when the child failed
"""
from __future__ import annotations

import os
import subprocess
import sys

ROOT = os.path.dirname(os.path.abspath(__file__))

out_file = os.path.join(ROOT, "run_output.txt")
err_file = os.path.join(ROOT, "run_exception.txt")


def _child_command(argv: list[str]) -> list[str]:
    args = list(argv)
    if "--frames" not in args:
        args = ["--frames", "120"] + args
    return [sys.executable, "-m", "morphfield.main", "--debug", "--backend", "raster"] + args


def main(argv: list[str]) -> int:
    env = dict(os.environ)
    env.setdefault("QT_QPA_PLATFORM", "offscreen")
    env["PYTHONPATH"] = os.pathsep.join(p for p in (ROOT, env.get("PYTHONPATH", "")) if p)

    proc = subprocess.run(_child_command(argv), cwd=ROOT, env=env, capture_output=True, text=True)

    combined = proc.stdout + ("\n" + proc.stderr if proc.stderr else "")
    with open(out_file, "w", encoding="utf-8") as outf:
        outf.write(combined)

    if proc.returncode != 0:
        with open(err_file, "w", encoding="utf-8") as errf:
            errf.write(combined)
        print(f"Child process exited with {proc.returncode}; see", err_file)
    else:
        print("Run completed without exception; see", out_file)
    return proc.returncode


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
