from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from redis import Redis
from typing import List, Optional

from .. import schemas, crud, models, cache
from ..database import get_db, get_redis_client

router = APIRouter(tags=["Catalog"])


@router.get("/packages/", response_model=List[schemas.PackageRead])
def read_packages(
        destination_id: Optional[int] = None,
        search: Optional[str] = None,
        price_range: Optional[schemas.PriceRange] = None,
        difficulty: Optional[models.DifficultyLevel] = None,
        skip: int = 0,
        limit: int = 100,
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    # Only the unfiltered first page is cached
    unfiltered = (destination_id, search, price_range, difficulty) == (None, None, None, None) \
        and skip == 0 and limit == 100

    if unfiltered:
        cached_packages = cache.get_cached(redis_client, cache.ALL_PACKAGES_KEY)
        if cached_packages is not None:
            return cached_packages

    packages = crud.get_packages(
        db,
        destination_id=destination_id,
        search=search,
        price_range=price_range,
        difficulty=difficulty,
        skip=skip,
        limit=limit
    )
    packages_list = [schemas.PackageRead.model_validate(p).model_dump(mode="json") for p in packages]

    if unfiltered:
        cache.set_cached(redis_client, cache.ALL_PACKAGES_KEY, packages_list)
    return packages_list


@router.get("/packages/featured", response_model=List[schemas.PackageRead])
def read_featured_packages(
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    cached_packages = cache.get_cached(redis_client, cache.FEATURED_PACKAGES_KEY)
    if cached_packages is not None:
        return cached_packages

    packages = crud.get_featured_packages(db)
    packages_list = [schemas.PackageRead.model_validate(p).model_dump(mode="json") for p in packages]
    cache.set_cached(redis_client, cache.FEATURED_PACKAGES_KEY, packages_list)
    return packages_list


@router.get("/packages/{package_id}", response_model=schemas.PackageRead)
def read_package(
        package_id: int,
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    cache_key = cache.package_key(package_id)
    cached_package = cache.get_cached(redis_client, cache_key)
    if cached_package is not None:
        return cached_package

    db_package = crud.get_package(db, package_id=package_id)
    if db_package is None:
        raise HTTPException(status_code=404, detail="Package not found")

    package_data = schemas.PackageRead.model_validate(db_package).model_dump(mode="json")
    cache.set_cached(redis_client, cache_key, package_data)
    return package_data


@router.get("/packages/{package_id}/reviews", response_model=List[schemas.ReviewRead])
def read_package_reviews(package_id: int, db: Session = Depends(get_db)):
    return crud.get_reviews(db, package_id=package_id)


@router.get("/destinations/", response_model=List[schemas.DestinationRead])
def read_destinations(
        popular: Optional[bool] = None,
        limit: Optional[int] = None,
        db: Session = Depends(get_db)
):
    return crud.get_destinations(db, popular=popular, limit=limit)


@router.get("/destinations/{destination_id}/reviews", response_model=List[schemas.ReviewRead])
def read_destination_reviews(destination_id: int, db: Session = Depends(get_db)):
    return crud.get_reviews(db, destination_id=destination_id)
