import os
import sys

# Keep test runs from writing log files into the working directory
os.environ.setdefault('LOG_DIR', '')

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
