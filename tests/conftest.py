import os
import tempfile

# Keep progress state written by the tests out of the working tree.
os.environ.setdefault(
    "PROGRESS_STATE_FILE",
    os.path.join(tempfile.mkdtemp(prefix="enum-progress-"), "progress_state.json"),
)
