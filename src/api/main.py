from fastapi import FastAPI, UploadFile, File, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, RedirectResponse
from pydantic import BaseModel
from typing import List, Dict, Optional
import os

from Filters.converter import GrayscaleReader
from Filters.gradient import GradientOperator, Norm
from Filters.output_filter import EdgeMapWriter
from Pipelines.canny import CannyConfig, CannyStage
from Utils.errors import ConfigurationError, EdgeDetectionError
from Utils.log import setup_logger

logger = setup_logger("api")

# =========================
# Directories (overridable through the environment)
# =========================
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp")


def input_dir() -> str:
    path = os.environ.get("EDGE_INPUT_DIR") or os.path.join(ROOT_DIR, "data", "input")
    os.makedirs(path, exist_ok=True)
    return path


def output_dir() -> str:
    path = os.environ.get("EDGE_OUTPUT_DIR") or os.path.join(ROOT_DIR, "data", "output")
    os.makedirs(path, exist_ok=True)
    return path


# =========================
# FastAPI + CORS (dev)
# =========================
app = FastAPI(title="Canny Edge Detection API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =========================
# Pydantic models
# =========================
class DetectRequest(BaseModel):
    image: str
    norm: str = "L2"
    low: Optional[int] = None
    high: Optional[int] = None
    min_edge_size: int = 0
    operator: str = "sobel"
    signed_gradient: bool = False
    seed: Optional[int] = None


# Recognised options, served to clients that build a form from them
OPTIONS: Dict[str, Dict] = {
    "norm": {"type": "enum", "options": [n.value for n in Norm], "default": Norm.L2.value},
    "low": {"type": "int", "min": 0, "max": 255, "default": None},
    "high": {"type": "int", "min": 0, "max": 255, "default": None},
    "min_edge_size": {"type": "int", "min": 0, "default": 0},
    "operator": {"type": "enum", "options": [o.value for o in GradientOperator],
                 "default": GradientOperator.SOBEL.value},
    "signed_gradient": {"type": "bool", "default": False},
    "seed": {"type": "int", "default": None},
}


def _config_from_request(req: DetectRequest) -> CannyConfig:
    if (req.low is None) != (req.high is None):
        raise ConfigurationError("thresholds", "give both low and high, or neither for automatic thresholds")
    thresholds = None if req.low is None else (req.low, req.high)
    return CannyConfig(norm=req.norm, thresholds=thresholds, min_edge_size=req.min_edge_size,
                       operator=req.operator, signed_gradient=req.signed_gradient, seed=req.seed)


def _safe_name(filename: str) -> str:
    if not filename or "/" in filename or "\\" in filename or filename in (".", ".."):
        raise HTTPException(status_code=400, detail="Invalid filename")
    return filename


def _list_images(folder: str, kind: str) -> List[Dict]:
    files = []
    for f in sorted(os.listdir(folder)):
        if f.lower().endswith(IMAGE_EXTENSIONS):
            files.append({"name": f, "url": f"/api/file/{kind}/{f}"})
    return files

# =========================
# Endpoints
# =========================
@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs")

@app.get("/api/options")
def list_options():
    return OPTIONS

@app.get("/api/images")
def list_input_images():
    return {"images": _list_images(input_dir(), "input")}

@app.get("/api/outputs")
def list_outputs():
    return {"outputs": _list_images(output_dir(), "output")}

@app.post("/api/upload")
async def upload_images(files: List[UploadFile] = File(...)):
    saved = []
    folder = input_dir()
    for uf in files:
        name = os.path.basename(uf.filename or "")
        if not name:
            continue
        data = await uf.read()
        with open(os.path.join(folder, name), "wb") as f:
            f.write(data)
        saved.append(name)
    logger.info(f"uploaded {len(saved)} file(s)")
    return {"saved": saved}

@app.post("/api/detect")
def detect(payload: DetectRequest):
    name = _safe_name(payload.image)
    try:
        config = _config_from_request(payload)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail={"field": e.field, "message": e.message})

    path = os.path.join(input_dir(), name)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Image not found")

    env = {"id": None, "payload": path, "meta": {"orig_path": path}}
    try:
        for stage in (GrayscaleReader(), CannyStage(config), EdgeMapWriter(output_dir())):
            env = stage.process(env)
    except EdgeDetectionError as e:
        logger.warning(f"{name}: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        # unreadable or oversized image
        raise HTTPException(status_code=422, detail=str(e))

    summary = env["meta"]["summary"]
    logger.info(f"{name}: low={summary['low_threshold']} high={summary['high_threshold']} "
                f"edges={summary['edge_pixels']}")
    outputs = {}
    for kind, out_path in env["payload"].items():
        fname = os.path.basename(out_path)
        outputs[kind] = {"name": fname, "url": f"/api/file/output/{fname}"}
    return {"image": name, **summary, "outputs": outputs}

@app.get("/api/file/{kind}/{filename}")
def get_file(kind: str, filename: str):
    filename = _safe_name(filename)
    if kind == "input":
        path = os.path.join(input_dir(), filename)
    elif kind == "output":
        path = os.path.join(output_dir(), filename)
    else:
        raise HTTPException(status_code=400, detail="Invalid kind")
    if not os.path.exists(path):
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, headers={"Cache-Control": "no-store, max-age=0"})

@app.get("/favicon.ico", include_in_schema=False)
def favicon():
    return Response(status_code=204)

# run directly (optional), from inside src/
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
