import csv

CSV_HEADERS = ["Date", "Guest Name", "Number of Rooms", "Rooms", "Remarks"]


def room_label(number, room_names):
    return room_names.get(number) or f"Room {number}"


def write_bookings_csv(stream, bookings, room_names):
    """Write bookings as CSV to ``stream``, naming rooms from ``room_names``."""
    writer = csv.writer(stream, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for booking in bookings:
        writer.writerow([
            booking.date.isoformat(),
            booking.guest_name,
            booking.room_count,
            ", ".join(room_label(number, room_names) for number in booking.room_numbers),
            booking.remarks or "",
        ])
