"""Drive the engine without a window and print how the morph progresses.

Scrolls a virtual page from top to bottom over a few seconds of simulated
frames and reports the smoothed morph value, the visible particle count and
the mean sprite size along the way.
"""
import os, sys
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from morphfield.config import load_config
from morphfield.engine import MorphEngine

preset = sys.argv[1] if len(sys.argv) > 1 else 'converge'
engine = MorphEngine(load_config(preset, {'geometry': {'segmentsX': 60, 'segmentsY': 30}}), seed=0)

w, h = 800, 600
engine.resize(w, h)
page = 3 * h
samples = []
for frame in range(360):
    clock = frame / 60.0
    engine.inputs.scroll(min(frame / 240.0, 1.0) * page, scrollable_height=2 * h, viewport_height=h)
    batch = engine.step(clock)
    samples.append((frame, batch.smoothed, batch.visible_count, float(batch.sizes[batch.visible].mean()) if batch.visible_count else 0.0))

print('Preset:', preset, '- particles:', engine.field.count)
for frame, smoothed, visible, size in samples[::30]:
    print(f'frame {frame:3d}  morph={smoothed:.3f}  visible={visible:5d}  mean size={size:.2f}px')
print('Reached sphere?', samples[-1][1] > 0.95)
engine.release()
