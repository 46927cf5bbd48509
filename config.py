# config.py
import os

# ======= Worker / search caps =======
WORKERS           = int(os.getenv("RP_WORKERS", "1"))
MAX_MEMORY_MB     = int(os.getenv("RP_MAX_MEMORY_MB", "2048"))

# ======= Backtracking budget =======
# A region that exhausts either limit is reported as unknown rather than
# infeasible.  REGION_TIME_LIMIT of 0 disables the wall clock.
NODE_LIMIT        = int(os.getenv("RP_NODE_LIMIT", "5000000"))
REGION_TIME_LIMIT = float(os.getenv("RP_REGION_TIME_LIMIT", "0"))
SYMMETRY_BREAK    = int(os.getenv("RP_SYMMETRY_BREAK", "1")) != 0

# ======= CP-SAT rescue =======
CP_SAT_RESCUE     = int(os.getenv("RP_CP_SAT_RESCUE", "1")) != 0
CP_SAT_SECONDS    = float(os.getenv("RP_CP_SAT_SECONDS", "30"))

# ======= Files =======
INPUT_FILE  = os.getenv("RP_INPUT_FILE", "input.txt")
SUMMARY_OUT = os.getenv("RP_SUMMARY_OUT", "summary.json")


class CFG:
    WORKERS       = WORKERS
    MAX_MEMORY_MB = MAX_MEMORY_MB

    NODE_LIMIT        = NODE_LIMIT
    REGION_TIME_LIMIT = REGION_TIME_LIMIT
    SYMMETRY_BREAK    = SYMMETRY_BREAK

    CP_SAT_RESCUE  = CP_SAT_RESCUE
    CP_SAT_SECONDS = CP_SAT_SECONDS

    INPUT_FILE  = INPUT_FILE
    SUMMARY_OUT = SUMMARY_OUT


__all__ = ["CFG"]
