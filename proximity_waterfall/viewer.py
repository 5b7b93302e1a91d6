"""
Viewer Module
Minimal window showing the waterfall as it scrolls.
"""

import pyqtgraph as pg
from PyQt5.QtWidgets import QVBoxLayout, QWidget

from proximity_waterfall.controller import WaterfallController


class WaterfallViewer(QWidget):
    """Shows a controller's surface, redrawn whenever a row is added."""

    def __init__(self, controller: WaterfallController, title: str = "Proximity Waterfall"):
        super().__init__()
        self.controller = controller
        self.redraw_count = 0

        self.setWindowTitle(title)
        self.setup_ui()

        # Queued across threads when scans are rendered on a worker thread
        self.controller.redraw_requested.connect(self.update_image)

    def setup_ui(self):
        """Setup the display UI."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.plot_widget = pg.GraphicsLayoutWidget()
        self.plot_widget.setBackground('k')
        layout.addWidget(self.plot_widget)

        self.waterfall_plot = self.plot_widget.addPlot(
            title=f"Waterfall ({self.controller.get_mode().value})",
            labels={'left': 'Scan', 'bottom': 'Column'}
        )
        self.waterfall_plot.invertY(True)
        self.waterfall_plot.getViewBox().setBackgroundColor('black')

        self.waterfall_img = pg.ImageItem(axisOrder='row-major')
        self.waterfall_plot.addItem(self.waterfall_img)

        self.resize(self.controller.surface.width, self.controller.surface.height)

    def update_image(self):
        """Copy the surface into the image item."""
        image = self.controller.rgb_image()
        if image.size == 0:
            return

        self.waterfall_img.setImage(image, levels=(0, 255))
        self.waterfall_plot.setTitle(f"Waterfall ({self.controller.get_mode().value})")
        self.redraw_count += 1
