import os
import cv2
import numpy as np

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
INPUT_DIR = os.path.join(ROOT, "data", "input")


def step_image(h=120, w=160, dark=30, bright=220):
    img = np.full((h, w), dark, dtype=np.uint8)
    img[:, w // 2:] = bright
    return img


def shapes_image(i, h=200, w=300):
    rng = np.random.default_rng(i)
    img = np.full((h, w), 40 + (i * 17) % 60, dtype=np.uint8)
    cv2.rectangle(img, (20 + i * 5, 30), (120 + i * 5, 150), 200, -1)
    cv2.circle(img, (210, 100 - i * 3), 45, 150, -1)
    cv2.line(img, (10, h - 20), (w - 10, h - 60 - i * 4), 255, 2)
    noise = rng.normal(0, 4, size=img.shape)
    return np.clip(img + noise, 0, 255).astype(np.uint8)


def create_images(n=6, out_dir=INPUT_DIR):
    os.makedirs(out_dir, exist_ok=True)
    cv2.imwrite(os.path.join(out_dir, "step.png"), step_image())
    for i in range(n):
        fn = os.path.join(out_dir, f"sample_{i:02d}.png")
        cv2.imwrite(fn, shapes_image(i))
    print(f"Created {n + 1} sample images in: {out_dir}")


if __name__ == "__main__":
    create_images(8)
