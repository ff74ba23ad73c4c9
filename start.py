#!/usr/bin/env python3
"""
Time Capsule Service Entrypoint

This script determines which process to run based on the SERVICE_TYPE
environment variable.

SERVICE_TYPE values:
  - delivery (default): Run the daily delivery scheduler
  - check: Run one delivery check now and exit
  - status: Print delivery status and exit
"""

import os
import sys

SERVICE_TYPE = os.environ.get("SERVICE_TYPE", "delivery")

print("=" * 50)
print(f"Time Capsule Service: {SERVICE_TYPE}")
print("=" * 50)

if SERVICE_TYPE == "delivery":
    cmd = [sys.executable, "-m", "capsule.jobs.run_delivery"]
elif SERVICE_TYPE == "check":
    cmd = [sys.executable, "-m", "capsule.jobs.run_delivery", "--once"]
elif SERVICE_TYPE == "status":
    cmd = [sys.executable, "-m", "capsule.jobs.run_delivery", "--status"]
else:
    print(f"ERROR: Unknown SERVICE_TYPE: {SERVICE_TYPE}")
    print("Valid values: delivery, check, status")
    sys.exit(1)

print(f"Running: {' '.join(cmd)}")
print("=" * 50)

# Replace this process with the actual command
os.execvp(cmd[0], cmd)
