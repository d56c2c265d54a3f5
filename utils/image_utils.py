import cv2
import numpy as np
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes into an OpenCV array.

    Single-channel 8-bit images stay single-channel so that already
    grayscaled output round-trips unchanged; everything else becomes BGR.

    Args:
        data: Encoded image bytes

    Returns:
        Image as numpy array

    Raises:
        ValueError: If OpenCV cannot decode the bytes
    """
    nparr = np.frombuffer(data, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError("OpenCV could not decode image data")

    if image.ndim == 2 and image.dtype == np.uint8:
        return image

    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("OpenCV could not decode image data")
    return image


def encode_png(image: np.ndarray) -> bytes:
    """Encode an array as lossless PNG bytes."""
    ok, buffer = cv2.imencode('.png', image)
    if not ok:
        raise ValueError("OpenCV could not encode image as PNG")
    return buffer.tobytes()


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Return a single-channel copy of the image."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def calculate_sharpness(gray: np.ndarray) -> float:
    """
    Measure focus as the variance of the Laplacian.

    Args:
        gray: Grayscale image

    Returns:
        Sharpness score (higher is sharper)
    """
    laplacian = cv2.Laplacian(gray, cv2.CV_64F)
    return float(laplacian.var())


def calculate_contrast(gray: np.ndarray) -> float:
    """Standard deviation of pixel intensities."""
    return float(np.std(gray))


def calculate_brightness(gray: np.ndarray) -> float:
    """Mean pixel intensity (0-255)."""
    return float(np.mean(gray))


def resize_to_width(image: np.ndarray, width: int) -> np.ndarray:
    """Resize keeping the aspect ratio."""
    h, w = image.shape[:2]
    if w == width:
        return image
    scale = width / w
    new_height = max(1, int(round(h * scale)))
    interpolation = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
    return cv2.resize(image, (width, new_height), interpolation=interpolation)


def get_skew_angle(image: np.ndarray, max_angle: float = 45.0) -> Optional[float]:
    """
    Estimate the rotation of the text block in an image.

    Dark text on a light background is thresholded with Otsu and the
    minimum-area rectangle around all text pixels gives the angle.

    Args:
        image: Input image as numpy array
        max_angle: Angles with a larger magnitude are treated as detection noise

    Returns:
        Angle in degrees to rotate by, or None if detection fails
    """
    gray = to_grayscale(image)
    thresh = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)[1]

    # (x, y) coordinates of all foreground pixels
    ys, xs = np.where(thresh > 0)
    if len(xs) < 10:
        return None
    coords = np.column_stack((xs, ys)).astype(np.float32)

    angle = cv2.minAreaRect(coords)[-1]

    # OpenCV < 4.5 reports [-90, 0), newer versions (0, 90]
    if angle < -45:
        angle = 90 + angle
    elif angle > 45:
        angle = angle - 90

    if abs(angle) > max_angle:
        logger.debug(f"Ignoring implausible skew angle {angle:.2f}")
        return None

    return float(angle)


def deskew(image: np.ndarray, angle: float) -> np.ndarray:
    """
    Rotate an image to correct skew.

    Args:
        image: Input image as numpy array
        angle: Angle to rotate in degrees

    Returns:
        Deskewed image
    """
    # Get image dimensions
    h, w = image.shape[:2]
    center = (w // 2, h // 2)

    # Get rotation matrix
    M = cv2.getRotationMatrix2D(center, angle, 1.0)

    # Perform rotation
    return cv2.warpAffine(
        image, M, (w, h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_REPLICATE
    )


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height) of an array."""
    h, w = image.shape[:2]
    return w, h
