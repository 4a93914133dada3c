# SENTINEL object marks end-of-stream between batch stages; compare with "is"
SENTINEL = object()

IMAGE_PATTERNS = ["*.png", "*.jpg", "*.jpeg", "*.bmp", "*.tif", "*.tiff"]

# Envelope contract:
# envelope = {
#   "id": str,
#   "payload": <path | grid ndarray | GradientField | EdgeTrace | CannyResult>,
#   "meta": {
#       "stage": int,           # number of stages the envelope went through
#       "orig_path": str,
#       "shape": (rows, cols),  # shape of the input grid
#       "thresholds": Thresholds,
#       ...
#   }
# }
