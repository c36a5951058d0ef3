"""
Postprocessing for the detector adapter.

Responsibility:
    Parse the raw YOLO-style network output into Detection objects:
    confidence thresholding, non-maximum suppression, label ranking and
    conversion of boxes to normalized, bottom-left-origin rects.

Non-goals:
    - No drawing, saving, or display logic.
    - No model loading or inference.

Hard-coded:
    - Output tensor layout: (1, 4 + C, N) or (1, N, 4 + C) where each
      candidate is [cx, cy, w, h, score_0 .. score_{C-1}] with box
      values in network-input pixels (top-left origin).
"""

import logging
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from detect_overlay.detection import Detection, Label, NormalizedRect

logger = logging.getLogger(__name__)


def _candidates(network_output: np.ndarray, num_classes: Optional[int]) -> np.ndarray:
    """Return the output as an (N, 4 + C) array."""
    raw = np.asarray(network_output, dtype=np.float32)
    if raw.ndim == 3:
        raw = raw[0]
    if raw.ndim != 2:
        raise ValueError(
            f"Unexpected network output shape {np.shape(network_output)}; "
            f"expected (1, 4 + C, N) or (1, N, 4 + C)."
        )

    row_len = 4 + num_classes if num_classes is not None else None
    if row_len is not None and row_len in raw.shape:
        if raw.shape[0] == row_len and raw.shape[1] != row_len:
            raw = raw.T
    else:
        if row_len is not None:
            logger.warning(
                "Class names list %d classes but model output has shape %s; "
                "inferring the layout from the shape.",
                num_classes, raw.shape,
            )
        if 5 <= raw.shape[0] < raw.shape[1]:
            # Channel-first export: far fewer rows (4 + C) than candidates.
            raw = raw.T

    if raw.shape[1] < 5:
        raise ValueError(
            f"Network output rows have {raw.shape[1]} values; need 4 box "
            f"values plus at least one class score."
        )
    return raw


def _rank_labels(
    scores: np.ndarray,
    class_names: Sequence[str],
    max_labels: int,
) -> Tuple[Label, ...]:
    """Top `max_labels` non-zero class scores, highest first."""
    order = np.argsort(-scores, kind="stable")[:max_labels]
    labels = []
    for class_id in order:
        score = float(scores[class_id])
        if score <= 0.0:
            break
        labels.append(Label(identifier=class_name(class_names, int(class_id)), confidence=score))
    return tuple(labels)


def class_name(class_names: Sequence[str], class_id: int) -> str:
    """Name for `class_id`, falling back to 'class_<id>'."""
    if 0 <= class_id < len(class_names):
        return class_names[class_id]
    return f"class_{class_id}"


def postprocess(
    network_output: np.ndarray,
    input_size: Tuple[int, int],
    confidence_threshold: float,
    nms_threshold: float,
    class_names: Sequence[str] = (),
    max_labels: int = 5,
) -> List[Detection]:
    """Parse raw YOLO output into a list of Detection objects.

    Args:
        network_output: Raw output from net.forward().
        input_size: (width, height) of the network input blob; box values
                    are expressed in these pixels.
        confidence_threshold: Minimum top-class score to keep a candidate.
        nms_threshold: IoU threshold for non-maximum suppression.
        class_names: Class names indexed by class id. If given, also
                     used to recognise the tensor orientation.
        max_labels: Number of ranked labels kept per detection.

    Returns:
        List of Detection objects, sorted by top-label confidence
        (descending). Boxes are normalized with a bottom-left origin.
    """
    raw = _candidates(network_output, len(class_names) or None)
    in_w, in_h = float(input_size[0]), float(input_size[1])

    scores = raw[:, 4:]
    best = scores.max(axis=1)
    keep = np.flatnonzero(best >= confidence_threshold)
    if keep.size == 0:
        return []

    # NMSBoxes wants top-left (x, y, w, h) boxes in pixels.
    boxes = []
    for i in keep:
        cx, cy, w, h = (float(v) for v in raw[i, :4])
        boxes.append([cx - w / 2.0, cy - h / 2.0, w, h])
    kept_scores = [float(best[i]) for i in keep]

    selected = cv2.dnn.NMSBoxes(boxes, kept_scores, confidence_threshold, nms_threshold)
    selected = np.array(selected).reshape(-1)

    detections: List[Detection] = []
    for idx in selected:
        left, top, w, h = boxes[int(idx)]
        norm_w = w / in_w
        norm_h = h / in_h
        rect = NormalizedRect(
            x=left / in_w,
            # Flip to bottom-left origin: bottom edge measured from the bottom.
            y=1.0 - top / in_h - norm_h,
            width=norm_w,
            height=norm_h,
        )
        labels = _rank_labels(scores[keep[int(idx)]], class_names, max_labels)
        detections.append(Detection(bounding_box=rect, labels=labels))

    detections.sort(key=lambda d: d.confidence, reverse=True)
    return detections
