"""Print stylesheet injected into every document before export.

Keeps media, tables and card-like blocks from splitting across pages, controls
orphans and widows, and forces exact colours in print.
"""

PRINT_STYLESHEET = """
img, svg, figure, picture, video, canvas,
table, thead, tbody, tfoot, tr,
pre, code, blockquote,
.no-break, .avoid-break,
[data-no-break], [data-avoid-break] {
    page-break-inside: avoid !important;
    break-inside: avoid !important;
}

p, li, h1, h2, h3, h4, h5, h6 {
    orphans: 3 !important;
    widows: 3 !important;
}

h1, h2, h3, h4, h5, h6 {
    page-break-after: avoid !important;
    break-after: avoid !important;
}

img, svg, figure, picture {
    max-height: 100vh !important;
    object-fit: contain !important;
}

thead {
    display: table-header-group !important;
}
tfoot {
    display: table-footer-group !important;
}

article, section, aside, .card, .box, .panel,
.container, .wrapper, .block, .item, .entry {
    page-break-inside: avoid !important;
    break-inside: avoid !important;
}

.page-break, .page-break-before, [data-page-break] {
    page-break-before: always !important;
    break-before: page !important;
}
.page-break-after {
    page-break-after: always !important;
    break-after: page !important;
}

[style*="display: flex"] > *,
[style*="display:flex"] > *,
[style*="display: grid"] > *,
[style*="display:grid"] > * {
    page-break-inside: avoid !important;
    break-inside: avoid !important;
}

@media print {
    * {
        -webkit-print-color-adjust: exact !important;
        print-color-adjust: exact !important;
        color-adjust: exact !important;
    }
}
"""
