from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response

from recordquery.api.datasets import Dataset, get_dataset, list_datasets
from recordquery.core.errors import FilterError
from recordquery.schemas.filter_set import FilterSet, Page
from recordquery.services.csv_export import export_csv
from recordquery.services.data_query import data_query

router = APIRouter()


def _dataset_or_404(name: str) -> Dataset:
    dataset = get_dataset(name)
    if dataset is None:
        raise HTTPException(status_code=404, detail=f'Unknown dataset "{name}"')
    return dataset


def _bad_filter(exc: FilterError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


@router.get("")
def available_datasets():
    return {"datasets": list_datasets()}


@router.post("/{dataset_name}")
def query_dataset(
    dataset_name: str,
    fs: FilterSet,
    page_index: int = Query(default=0, alias="pageIndex"),
    page_size: int = Query(default=0, alias="pageSize"),
):
    dataset = _dataset_or_404(dataset_name)
    try:
        result = data_query(dataset.loader(), dataset.record_type, fs, Page(index=page_index, size=page_size))
    except FilterError as exc:
        raise _bad_filter(exc)
    return result.to_dict(serialize=jsonable_encoder)


@router.post("/{dataset_name}/csv")
def export_dataset_csv(dataset_name: str, fs: FilterSet):
    dataset = _dataset_or_404(dataset_name)
    try:
        payload = export_csv(dataset.loader(), dataset.record_type, fs)
    except FilterError as exc:
        raise _bad_filter(exc)
    return Response(
        content=payload,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{dataset.name}.csv"'},
    )
