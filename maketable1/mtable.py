import os
import re
from html import escape
from typing import Dict, Optional, Union

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Cm, Inches, Pt
from great_tables import GT, html
from IPython.display import display

from .model import TableModel


class DualOutput:
    """Display different outputs in notebook vs Quarto rendering."""

    def __init__(self, notebook_html, quarto_latex):
        self.notebook_html = notebook_html
        self.quarto_latex = quarto_latex

    def _repr_mimebundle_(self, include=None, exclude=None):
        return {
            "text/html": self.notebook_html,
            "text/latex": self.quarto_latex,
        }


class MTable:
    """
    Render a ``TableModel`` as great-tables/HTML, LaTeX or Word output.

    Column group spans, row groups (variable groups or, for transposed tables,
    stratum groups), indentation of statistic rows, the caption and the
    footnote are carried into every format.

    Parameters
    ----------
    model : TableModel
        The table to display.
    notes : str, optional
        Notes below the table. Defaults to the footnote of the model.
    caption : str, optional
        Table caption. Defaults to the caption of the model.
    tab_label : str, optional
        Label of the table (LaTeX \\label{}, default file name in ``save``).
    rgroup_sep : str, optional
        Lines around row group labels: "tb", "t", "b" or "". Default "tb".
    rgroup_display : bool, optional
        Whether to show row group labels. Default True.
    default_paths : str or dict, optional
        Directory for saved files, for all types or per type.
    tex_params, docx_params, gt_params : dict, optional
        Keyword arguments used when the table is displayed in a notebook
        (see ``make``).

    Examples
    --------
    >>> model = table1(df, ["age", "sex"], by="arm")
    >>> MTable(model, tab_label="tab:baseline").make("tex")
    """

    DEFAULT_NOTES = None
    DEFAULT_CAPTION = None
    DEFAULT_TAB_LABEL = None
    DEFAULT_RGROUP_SEP = "tb"
    DEFAULT_RGROUP_DISPLAY = True
    DEFAULT_SAVE_PATH = None  # can be string or dict
    DEFAULT_REPLACE = False
    DEFAULT_SAVE_TYPE = "html"
    ADMISSIBLE_TYPES = ["gt", "tex", "docx", "html"]
    ADMISSIBLE_SAVE_TYPES = ["tex", "docx", "html"]
    DEFAULT_TEX_TAB_WIDTH: Optional[str] = r"\linewidth"

    # Prefix of indented (statistic) row labels per output type
    DEFAULT_INDENT: Dict[str, str] = {
        "gt": "\u00a0" * 4,
        "tex": r"\quad ",
        "docx": "    ",
    }

    DEFAULT_TEX_STYLE: Dict[str, object] = {
        "arraystretch": 1,
        "tabcolsep": "3pt",
        "cmidrule_trim": "lr",  # "", "l", "r", "lr"
        "first_row_addlinespace": "1ex",  # None disables
        "group_header_format": r"\emph{%s}",
        "variable_format": r"\textbf{%s}",
        "notes_fontsize_cmd": r"\footnotesize",
    }

    DEFAULT_DOCX_STYLE: Dict[str, object] = {
        "font_name": "Times New Roman",
        "font_size_pt": 11,
        "notes_font_size_pt": 9,
        "caption_align": "center",  # left|center|right|justify
        "notes_align": "justify",
        "bold_variable_rows": True,
        # rule sizes in eighths of a point
        "outer_rule_sz": 8,
        "inner_rule_sz": 4,
        "first_col_width": None,  # e.g. "2.5in", "6cm", "180pt"
    }

    # Passed to GT.tab_options, except "align" (cols_align)
    DEFAULT_GT_STYLE: Dict[str, object] = {
        "align": "center",
        "data_row_padding": "4px",
        "column_labels_padding": "4px",
        "column_labels_border_top_color": "black",
        "column_labels_border_bottom_color": "black",
        "column_labels_border_bottom_width": "0.5px",
        "table_body_border_top_color": "black",
        "table_body_border_bottom_color": "black",
        "table_body_hlines_style": "none",
        "row_group_border_top_color": "black",
        "row_group_border_bottom_color": "black",
        "row_group_border_top_width": "0.5px",
        "row_group_border_bottom_width": "0.5px",
    }

    def __init__(
        self,
        model: TableModel,
        notes: Optional[str] = DEFAULT_NOTES,
        caption: Optional[str] = DEFAULT_CAPTION,
        tab_label: Optional[str] = DEFAULT_TAB_LABEL,
        rgroup_sep: str = DEFAULT_RGROUP_SEP,
        rgroup_display: bool = DEFAULT_RGROUP_DISPLAY,
        default_paths: Union[None, str, dict] = DEFAULT_SAVE_PATH,
        tex_params: Optional[Dict[str, object]] = None,
        docx_params: Optional[Dict[str, object]] = None,
        gt_params: Optional[Dict[str, object]] = None,
    ):
        assert isinstance(model, TableModel), "model must be a TableModel."
        self.model = model
        self.notes = (model.footnote or "") if notes is None else notes
        self.caption = model.caption if caption is None else caption
        self.tab_label = tab_label
        self.rgroup_sep = rgroup_sep
        self.rgroup_display = rgroup_display
        if isinstance(default_paths, str):
            self.default_paths = dict.fromkeys(self.ADMISSIBLE_SAVE_TYPES, default_paths)
        elif isinstance(default_paths, dict):
            self.default_paths = default_paths.copy()
        else:
            self.default_paths = {}
        self._display_params = {
            "tex": tex_params or {},
            "docx": docx_params or {},
            "gt": gt_params or {},
        }

    @property
    def df(self):
        """The table as a DataFrame of strings (see ``TableModel.to_frame``)."""
        return self.model.to_frame()

    def _row_labels(self, type: str):
        return list(self.model.to_frame(indent=self.DEFAULT_INDENT.get(type, "")).index.get_level_values(-1))

    def _row_group_starts(self) -> Dict[int, str]:
        # Position of the first row of every row group -> group label
        starts = {}
        pos = 0
        for span in self.model.row_groups or []:
            starts[pos] = span.label
            pos += span.width
        return starts

    def _spanning_ranges(self):
        # (first, width, label) of every spanning column group, 0-based over data columns
        pos = 0
        for span in self.model.column_groups or []:
            if span.spanning:
                yield pos, span.width, span.label
            pos += span.width

    def make(self, type: str = None, **kwargs):
        """
        Create the output object of the table (gt, tex, docx or html).

        Without a type, a combined HTML and LaTeX output is displayed, so the
        table shows in notebooks and in Quarto documents rendered to pdf.

        Parameters
        ----------
        type : str, optional
            "gt", "tex", "docx" or "html".
        **kwargs :
            - tex: ``tab_width`` (None for a plain tabular), ``first_col_width``,
              ``tex_style`` overriding DEFAULT_TEX_STYLE, ``texlocation``.
            - gt, html: ``full_width``, ``gt_style`` overriding DEFAULT_GT_STYLE.
            - docx: ``first_col_width``, ``docx_style`` overriding DEFAULT_DOCX_STYLE.
        """
        if type is None:
            display(self._dual_output())
            return None
        assert type in self.ADMISSIBLE_TYPES, "types must be either " + ", ".join(
            self.ADMISSIBLE_TYPES
        )
        if type == "gt":
            return self._output_gt(**kwargs)
        elif type == "tex":
            return self._output_tex(**kwargs)
        elif type == "docx":
            return self._output_docx(**kwargs)
        return self._output_html(**kwargs)

    def save(
        self,
        type: str = DEFAULT_SAVE_TYPE,
        file_name: str = None,
        show: bool = True,
        replace: bool = DEFAULT_REPLACE,
        **kwargs,
    ):
        """
        Save the table to a new tex, docx or html file.

        Without ``file_name`` the file is ``default_paths[type] + tab_label``.
        An existing file is only overwritten with ``replace=True``. With
        ``show`` the great-tables object is returned for display.
        """
        assert type in self.ADMISSIBLE_SAVE_TYPES, "types must be either " + ", ".join(
            self.ADMISSIBLE_SAVE_TYPES
        )
        if file_name is None:
            if self.tab_label is None:
                raise ValueError("tab_label must be provided if file_name is None")
            if self.default_paths.get(type) is None:
                raise ValueError(
                    f"Default path for type {type} has to be set if file_name is None"
                )
            file_name = self.default_paths[type] + self.tab_label
        elif not os.path.splitext(file_name)[1]:
            file_name += f".{type}"
        if self.default_paths.get(type) is not None and not os.path.isabs(file_name):
            file_name = os.path.join(self.default_paths[type], file_name)
        if not replace and os.path.exists(file_name):
            raise ValueError(
                f"File {file_name} already exists. Set replace=True or use class parameter DEFAULT_REPLACE=True to replace the file."
            )
        assert os.path.isdir(os.path.dirname(file_name) or "."), f"{file_name} is not a valid path."
        if type == "docx":
            self._output_docx(**kwargs).save(file_name)
        else:
            output = self._output_tex(**kwargs) if type == "tex" else self._output_html(**kwargs)
            with open(file_name, "w", encoding="utf-8") as f:
                f.write(output)
        if show:
            return self._output_gt(**kwargs)

    def update_docx(
        self,
        file_name: str = None,
        tab_num: Optional[int] = None,
        show: bool = False,
        first_col_width: Optional[str] = None,
        docx_style: Optional[Dict[str, object]] = None,
        **kwargs,
    ):
        """
        Add the table to a Word document, or replace one of its tables.

        Parameters
        ----------
        file_name : str
            Path of the .docx file; created when missing. Relative paths are
            resolved against ``default_paths["docx"]``.
        tab_num : int, optional
            1-based index of the table to replace. When None or out of range
            the table is appended.
        show : bool, optional
            Return the great-tables object for display. Default False.
        """
        assert file_name is not None, "file_name must be provided"
        s = self._docx_style(first_col_width, docx_style)
        if self.default_paths.get("docx") is not None and not os.path.isabs(file_name):
            file_name = os.path.join(self.default_paths["docx"], file_name)
        ext = os.path.splitext(file_name)[1]
        if not ext:
            file_name += ".docx"
        elif ext != ".docx":
            raise ValueError("file_name must have .docx extension")
        assert os.path.isdir(os.path.dirname(file_name) or "."), f"{file_name} is not a valid path."
        document = Document(file_name) if os.path.exists(file_name) else Document()

        if tab_num is not None and 0 < tab_num <= len(document.tables):
            table = document.tables[tab_num - 1]
            previous = table._element.getprevious()
            if self.caption is not None and previous is not None and previous.tag == qn("w:p"):
                # the last run of a caption paragraph holds the caption text
                texts = previous.findall(qn("w:r") + "/" + qn("w:t"))
                if texts and "Table" in texts[0].text:
                    texts[-1].text = f": {self.caption}"
            for row in list(table.rows):
                table._element.remove(row._element)
            self._fill_docx_table(table, s)
        else:
            self._add_docx_table(document, s)
            document.add_paragraph()
        document.save(file_name)
        if show:
            return self._output_gt(**kwargs)

    def _docx_style(self, first_col_width=None, docx_style=None) -> Dict[str, object]:
        s = dict(self.DEFAULT_DOCX_STYLE)
        s.update(docx_style or {})
        if first_col_width is not None:
            s["first_col_width"] = first_col_width
        return s

    def _output_docx(
        self,
        first_col_width: Optional[str] = None,
        docx_style: Optional[Dict[str, object]] = None,
        **kwargs,
    ):
        document = Document()
        self._add_docx_table(document, self._docx_style(first_col_width, docx_style))
        return document

    def _add_docx_table(self, document, s: Dict[str, object]):
        if self.caption is not None:
            paragraph = document.add_paragraph("Table ", style="Caption")
            # SEQ field numbers the tables of the document
            run = paragraph.add_run()._r
            for kind, text in (("begin", None), (None, r"SEQ Table \* ARABIC"), ("end", None)):
                if kind is None:
                    node = OxmlElement("w:instrText")
                    node.text = text
                else:
                    node = OxmlElement("w:fldChar")
                    node.set(qn("w:fldCharType"), kind)
                run.append(node)
            paragraph.add_run(f": {self.caption}")
            paragraph.alignment = _DOCX_ALIGN.get(str(s["caption_align"]).lower())
            for r in paragraph.runs:
                r.font.name = str(s["font_name"])
                r.font.size = Pt(int(s["font_size_pt"]))
            paragraph.paragraph_format.keep_with_next = True
        table = document.add_table(rows=0, cols=len(self.model.columns) + 1)
        table.style = "Table Grid"
        self._fill_docx_table(table, s)
        return table

    def _fill_docx_table(self, table, s: Dict[str, object]):
        model = self.model
        ncols = len(model.columns) + 1
        outer, inner = int(s["outer_rule_sz"]), int(s["inner_rule_sz"])

        spanning = list(self._spanning_ranges())
        if model.column_groups is not None:
            cells = table.add_row().cells
            for first, width, label in spanning:
                cells[first + 1].text = label
                if width > 1:
                    cells[first + 1].merge(cells[first + width])
        cells = table.add_row().cells
        for i, col in enumerate(model.columns):
            cells[i + 1].text = col.label
        n_header = len(table.rows)

        group_starts = self._row_group_starts()
        group_rows, variable_rows = [], []
        for ridx, (label, header) in enumerate(zip(self._row_labels("docx"), model.rows)):
            if ridx in group_starts:
                group_rows.append(len(table.rows))
                if self.rgroup_display:
                    table.add_row().cells[0].text = str(group_starts[ridx])
            if header.kind == "variable":
                variable_rows.append(len(table.rows))
            cells = table.add_row().cells
            cells[0].text = str(label)
            for j, val in enumerate(model.cells[ridx]):
                cells[j + 1].text = str(val)

        if s.get("first_col_width") is not None:
            width = _docx_length(s["first_col_width"])
            for row in table.rows:
                row.cells[0].width = width

        notes = table.add_row().cells
        notes[0].text = self.notes or ""
        table.cell(-1, 0).merge(table.cell(-1, ncols - 1))

        last = len(table.rows) - 1
        for ridx, row in enumerate(table.rows):
            size = Pt(int(s["notes_font_size_pt"] if ridx == last else s["font_size_pt"]))
            bold = bool(s["bold_variable_rows"]) and ridx in variable_rows
            for cidx, cell in enumerate(row.cells):
                for paragraph in cell.paragraphs:
                    if ridx == last:
                        paragraph.alignment = _DOCX_ALIGN.get(str(s["notes_align"]).lower())
                    elif cidx > 0:
                        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
                    paragraph.paragraph_format.keep_with_next = True
                    for run in paragraph.runs:
                        run.font.name = str(s["font_name"])
                        run.font.size = size
                        run.font.bold = bold and cidx == 0
                edges = dict(top="nil", bottom="nil", left="nil", right="nil")
                if ridx == 0:
                    edges["top"] = outer
                if ridx == n_header - 1:
                    edges["bottom"] = inner
                if ridx == n_header - 1 and n_header > 1 and any(
                    first < cidx <= first + width for first, width, _ in spanning
                ):
                    edges["top"] = inner
                if ridx in group_rows:
                    if "t" in self.rgroup_sep:
                        edges["top"] = inner
                    if self.rgroup_display and "b" in self.rgroup_sep:
                        edges["bottom"] = inner
                if ridx == last - 1:
                    edges["bottom"] = outer
                _set_borders(cell, **edges)

    def _output_tex(
        self,
        first_col_width: Optional[str] = None,
        tab_width: Optional[str] = "default",
        tex_style: Optional[Dict[str, object]] = None,
        texlocation: str = "htbp",
        **kwargs,
    ):
        model = self.model
        s = dict(self.DEFAULT_TEX_STYLE)
        s.update(tex_style or {})
        tw = self.DEFAULT_TEX_TAB_WIDTH if tab_width == "default" else tab_width
        if tw in ("linewidth", "textwidth"):
            tw = "\\" + tw

        def _cell(x):
            x = str(x).replace("\n", r"\\")
            return f"\\makecell{{{x}}}" if r"\\" in x else x

        ncols = len(model.columns)
        if tw is not None:
            first = f"p{{{first_col_width}}}" if first_col_width else r">{\raggedright\arraybackslash}X"
            colspec = "@{}" + first + r">{\centering\arraybackslash}X" * ncols
        else:
            colspec = "@{}" + (f"p{{{first_col_width}}}" if first_col_width else "l") + "c" * ncols

        lines = [r"\begingroup"]
        if s.get("arraystretch") is not None:
            lines.append(rf"\renewcommand\arraystretch{{{s['arraystretch']}}}")
        if s.get("tabcolsep"):
            lines.append(rf"\setlength{{\tabcolsep}}{{{s['tabcolsep']}}}")
        env = "tabularx" if tw is not None else "tabular"
        lines.append(rf"\begin{{{env}}}" + (f"{{{tw}}}" if tw is not None else "") + f"{{{colspec}}}")
        lines.append(r"\toprule")

        # Column group spanners with cmidrules under the spanning groups
        if model.column_groups is not None:
            parts, pos, rules = [""], 0, []
            trim = f"({s['cmidrule_trim']})" if s.get("cmidrule_trim") else ""
            for first_col, width, label in self._spanning_ranges():
                parts.extend([""] * (first_col - pos))
                parts.append(f"\\multicolumn{{{width}}}{{c}}{{{_cell(label)}}}")
                rules.append(rf"\cmidrule{trim}{{{first_col + 2}-{first_col + width + 1}}}")
                pos = first_col + width
            parts.extend([""] * (ncols - pos))
            lines.append(" & ".join(parts) + r" \\")
            if rules:
                lines.append(" ".join(rules))
        lines.append(" & ".join([""] + [_cell(c.label) for c in model.columns]) + r" \\")
        lines.append(r"\midrule")

        space = s.get("first_row_addlinespace")
        group_starts = self._row_group_starts()
        for ridx, (label, header) in enumerate(zip(self._row_labels("tex"), model.rows)):
            if ridx in group_starts:
                if ridx > 0 and self.rgroup_sep != "":
                    lines.append(r"\midrule")
                if self.rgroup_display:
                    lines.append((str(s["group_header_format"]) % group_starts[ridx]) + r" \\")
            if space is not None and (ridx == 0 or ridx in group_starts):
                lines.append(rf"\addlinespace[{space}]")
            if header.kind == "variable" and s.get("variable_format"):
                label = str(s["variable_format"]) % label
            lines.append(" & ".join([str(label)] + [_cell(v) for v in model.cells[ridx]]) + r" \\")
        lines += [r"\bottomrule", rf"\end{{{env}}}", r"\endgroup"]

        body = "\\begin{threeparttable}\n" + "\n".join(lines)
        if self.notes:
            body += (
                "\n\\noindent\\begin{minipage}{\\linewidth}\\smallskip"
                + str(s["notes_fontsize_cmd"])
                + "\n"
                + self.notes
                + "\\end{minipage}\n"
            )
        body += "\n\\end{threeparttable}"

        if self.caption is not None or self.tab_label is not None:
            head = f"\\begin{{table}}[{texlocation}]\n\\centering\n"
            if self.caption is not None:
                head += "\\caption{" + self.caption + "}\n"
            if self.tab_label is not None:
                head += "\\label{" + self.tab_label + "}\n"
            body = head + "\\smallskip\n" + body + "\n\\end{table}"

        # Top-align makecell content
        return "\\renewcommand\\cellalign{t}\n" + body

    def _output_gt(
        self,
        full_width: bool = False,
        gt_style: Optional[Dict[str, object]] = None,
        **kwargs,
    ):
        model = self.model
        s = dict(self.DEFAULT_GT_STYLE)
        s.update(gt_style or {})
        align = s.pop("align", "center")

        # Leaf labels may repeat, so columns are numbered and relabelled
        col_ids = [str(i) for i in range(len(model.columns))]
        body = model.to_frame(indent=self.DEFAULT_INDENT["gt"])
        body = body.replace(r"\n", "<br>", regex=True)
        row_labels = list(body.index.get_level_values(-1))
        group_labels = list(body.index.get_level_values(0))
        body = body.reset_index(drop=True)
        body.columns = col_ids
        body.insert(0, "__row__", row_labels)
        groupname_col = None
        if model.row_groups is not None:
            groupname_col = "__group__"
            body.insert(0, groupname_col, group_labels)

        gt = GT(body, auto_align=False)
        if self.caption is not None:
            gt = gt.tab_header(title=self.caption).tab_options(table_border_top_style="hidden")
        for i, (first, width, label) in enumerate(self._spanning_ranges()):
            gt = gt.tab_spanner(
                label=html(escape(label)),
                columns=col_ids[first : first + width],
                id=f"__span_{i}__",
            )
        gt = gt.cols_label(
            **{
                cid: html(escape(col.label).replace("\n", "<br>"))
                for cid, col in zip(col_ids, model.columns)
            }
        )
        if self.notes:
            gt = gt.tab_source_note(self.notes)
        gt = gt.tab_stub(rowname_col="__row__", groupname_col=groupname_col)
        gt = gt.tab_options(
            table_border_bottom_style="hidden", stub_border_style="hidden", **s
        ).cols_align(align=align)
        if full_width:
            gt = gt.tab_options(table_width="100%")
        if "t" not in self.rgroup_sep:
            gt = gt.tab_options(row_group_border_top_style="none")
        if "b" not in self.rgroup_sep:
            gt = gt.tab_options(row_group_border_bottom_style="none")
        if not self.rgroup_display:
            gt = gt.tab_options(row_group_font_size="0px", row_group_padding="0px")
        return gt

    def _output_html(self, **kwargs) -> str:
        """Raw HTML of the table; the model's topclass is added to the table element."""
        html_output = self._output_gt(**kwargs).as_raw_html()
        if self.model.topclass:
            html_output = re.sub(
                r'<table class="([^"]*)"',
                lambda m: f'<table class="{m.group(1)} {self.model.topclass}"',
                html_output,
                count=1,
            )
        return html_output

    def _dual_output(self) -> DualOutput:
        html_output = (
            "<style>table tr:nth-child(even) {background-color: transparent !important;}</style>"
            + self._output_html(**self._display_params["gt"])
        )
        return DualOutput(html_output, self._output_tex(**self._display_params["tex"]))

    def _repr_mimebundle_(self, include=None, exclude=None):
        return self._dual_output()._repr_mimebundle_(include, exclude)

    def __repr__(self):
        rows, cols = self.model.shape
        return f"{type(self).__name__}(rows={rows}, columns={cols}, caption={self.caption!r})"


_DOCX_ALIGN = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

_DOCX_UNITS = {"in": Inches, "cm": Cm, "pt": Pt}


def _docx_length(value):
    """Word length from "2.5in", "6cm", "180pt" or a number of points."""
    text = str(value).strip().lower()
    unit = _DOCX_UNITS.get(text[-2:])
    try:
        return unit(float(text[:-2])) if unit else Pt(float(text))
    except ValueError:
        raise ValueError(
            f"Invalid first_col_width {value!r}; use e.g. '2.5in', '6cm' or '180pt'."
        ) from None


def _set_borders(cell, **edges):
    """Add a tcBorders element; values are 'nil' or a rule size in Word units."""
    tcPr = cell._element.get_or_add_tcPr()
    borders = OxmlElement("w:tcBorders")
    for edge, value in edges.items():
        node = OxmlElement(f"w:{edge}")
        if value == "nil":
            node.set(qn("w:val"), "nil")
        else:
            node.set(qn("w:val"), "single")
            node.set(qn("w:sz"), str(value))
        borders.append(node)
    tcPr.append(borders)
