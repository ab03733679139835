import csv
import io

from rest_framework.renderers import BaseRenderer


class CSVRenderer(BaseRenderer):
    """
    Renders a list of row dicts as CSV. Column order comes from the view's
    ``csv_columns``; otherwise the keys of the first row are used.
    """
    media_type = 'text/csv'
    format = 'csv'
    charset = 'utf-8'
    
    def render(self, data, accepted_media_type=None, renderer_context=None):
        if data is None:
            return ''
        if isinstance(data, dict):
            rows, columns = [data], list(data.keys())
        else:
            view = (renderer_context or {}).get('view')
            rows = data
            columns = getattr(view, 'csv_columns', None) or (list(rows[0].keys()) if rows else [])
        
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(columns)
        for row in rows:
            writer.writerow(['' if row.get(column) is None else row.get(column) for column in columns])
        return buffer.getvalue()
