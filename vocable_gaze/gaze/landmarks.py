"""
MediaPipe FaceMesh Landmark Indices
478-point mesh with iris refinement (refine_landmarks=True)
"""

NUM_FACE_LANDMARKS = 478

# Iris: 468-472 = left iris (468 = centre), 473-477 = right iris (473 = centre)
LEFT_IRIS_CENTER = 468
RIGHT_IRIS_CENTER = 473
LEFT_IRIS = (468, 469, 470, 471, 472)
RIGHT_IRIS = (473, 474, 475, 476, 477)

# Eye corners: left outer=33, inner=133 | right inner=362, outer=263
LEFT_EYE_OUTER = 33
LEFT_EYE_INNER = 133
RIGHT_EYE_INNER = 362
RIGHT_EYE_OUTER = 263

# Eye contours, used for the bounding region of the iris
LEFT_EYE_CONTOUR = (
    33, 7, 163, 144, 145, 153, 154, 155, 133,
    173, 157, 158, 159, 160, 161, 246,
)
RIGHT_EYE_CONTOUR = (
    362, 382, 381, 380, 374, 373, 390, 249, 263,
    466, 388, 387, 386, 385, 384, 398,
)

# Eye aspect ratio points, ordered p1..p6:
# p1/p4 horizontal corners, p2/p6 and p3/p5 upper/lower lid pairs
LEFT_EYE_EAR = (33, 160, 158, 133, 153, 144)
RIGHT_EYE_EAR = (362, 385, 387, 263, 373, 380)

# Head pose reference points
NOSE_TIP = 1
MOUTH_LEFT = 61
MOUTH_RIGHT = 291
