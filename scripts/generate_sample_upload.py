"""Generate sample product files for the bulk upload endpoint."""
import argparse
import csv
import random
from pathlib import Path

from openpyxl import Workbook

COLUMNS = ["name", "price", "categoryName", "image"]

# Category names must exist in the target database for rows to import.
CATEGORY_ITEMS = {
    "Electronics": ["Headphones", "USB-C Cable", "Monitor", "Keyboard", "Webcam"],
    "Books": ["Novel", "Cookbook", "Atlas", "Field Guide", "Anthology"],
    "Home & Garden": ["Planter", "Lamp", "Rug", "Watering Can"],
    "Sports": ["Yoga Mat", "Football", "Water Bottle", "Jump Rope"],
    "Office Supplies": ["Stapler", "Notebook", "Desk Organizer"],
}


def sample_rows(num_rows: int, invalid_ratio: float = 0.0):
    """
    Yield random product rows in upload column order.

    A fraction of rows (invalid_ratio) is broken on purpose: the price is
    left blank or the category does not exist.
    """
    categories = list(CATEGORY_ITEMS)

    for i in range(num_rows):
        category = random.choice(categories)
        name = f"{random.choice(CATEGORY_ITEMS[category])} #{i + 1}"
        price = f"{random.uniform(1, 500):.2f}"
        image = f"https://picsum.photos/seed/{i + 1}/400/400"

        if random.random() < invalid_ratio:
            if random.random() < 0.5:
                price = ""
            else:
                category = "Unknown Category"

        yield [name, price, category, image]


def write_sample(output_file: Path, num_rows: int, invalid_ratio: float) -> None:
    if output_file.suffix.lower() == ".xlsx":
        workbook = Workbook(write_only=True)
        sheet = workbook.create_sheet("Products")
        sheet.append(COLUMNS)
        for row in sample_rows(num_rows, invalid_ratio):
            sheet.append(row)
        workbook.save(output_file)
        return

    with open(output_file, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(COLUMNS)
        writer.writerows(sample_rows(num_rows, invalid_ratio))


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("num_rows", type=int)
    parser.add_argument(
        "output_file",
        nargs="?",
        help="Target .csv or .xlsx file (default: sample_<num_rows>.csv)",
    )
    parser.add_argument(
        "--invalid-ratio",
        type=float,
        default=0.0,
        help="Fraction of rows to make invalid, 0.0 - 1.0",
    )
    args = parser.parse_args()

    output_file = Path(args.output_file or f"sample_{args.num_rows}.csv")
    write_sample(output_file, args.num_rows, args.invalid_ratio)
    print(f"✅ Generated {args.num_rows:,} products in {output_file}")


if __name__ == "__main__":
    main()
